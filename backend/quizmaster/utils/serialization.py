"""MongoDB document serialization utilities."""

from bson import ObjectId

# Bookkeeping fields the repository adds to stored documents
INTERNAL_KEYS = ("_id", "slot", "seq")


def serialize_doc(doc, drop=INTERNAL_KEYS):
    """Convert a MongoDB document to a plain dict, dropping storage-only keys"""
    if doc is None:
        return None
    if isinstance(doc, ObjectId):
        return str(doc)
    if isinstance(doc, list):
        return [serialize_doc(d, drop) for d in doc]
    if isinstance(doc, dict):
        result = {}
        for key, value in doc.items():
            if key in drop:
                continue
            result[key] = serialize_doc(value, drop) if isinstance(value, (dict, list, ObjectId)) else value
        return result
    return doc
