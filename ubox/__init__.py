"""AVL trees, blob and blobmsg messages, JSON conversion, base64 and jshn."""

__version__ = "0.1.0"

__all__ = [
    "avl",
    "avl_iter",
    "base64",
    "blob",
    "blobmsg",
    "blobmsg_json",
    "jshn",
    "keys",
]