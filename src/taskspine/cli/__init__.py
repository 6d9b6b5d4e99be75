"""taskspine command line interface (``taskspine task ...``)."""
