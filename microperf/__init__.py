"""Building blocks for network benchmarks: workorders, strands, transports, statistics and reports."""

__version__ = "1.0.8"