"""
Corpus ingestion package.

- diacritics: Arabic diacritic detection
- sources: Pydantic schemas of the manifest, shard and unified documents
- loader: sharded-then-unified loading into the domain model
- index: collection lookup and the flattened search view
"""
