"""Fetch gateway: JSON, XML and RDF fetchers behind one request envelope."""
