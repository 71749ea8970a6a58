"""Deprecation-aware metrics registry, metric data model, version parsing and text exposition format."""