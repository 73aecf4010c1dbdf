"""healthsnap: health metric aggregation and sleep segmentation."""

__version__ = "0.1.0"
