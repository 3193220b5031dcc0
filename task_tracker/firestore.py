"""Firestore client for the task store."""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

import firebase_admin
from firebase_admin import firestore


@lru_cache
def get_firestore_client(project_id: Optional[str] = None):
    """Initialise the default Firebase app once and return its Firestore client.

    Credentials are resolved by Application Default Credentials; ``project_id``
    overrides the project they imply.
    """
    if not firebase_admin._apps:
        options = {"projectId": project_id} if project_id else None
        firebase_admin.initialize_app(options=options)
    return firestore.client()
