"""Plot tabular data as point or choropleth maps and export SVG."""

__version__ = "0.1.0"
