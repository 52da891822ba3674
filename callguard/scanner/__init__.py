"""Secret and PII scanning: catalog, validators, matching and redaction."""
