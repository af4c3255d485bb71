"""
Clients for the two external stores.

- cosmic.py: content store (media and content objects)
- blob.py: blob storage (existence check and upload by pathname)
"""
