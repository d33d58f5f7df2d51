"""
Field normalization layer.

Pure parsers turning raw text into typed values, the ordered rule tables
for enumerated fields, and the per-generation column mapping.
"""
