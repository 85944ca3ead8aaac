"""Runtime configuration, read from the environment (and .env via python-dotenv)."""

from __future__ import annotations

import os
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field


class Settings(BaseModel):
    """Connection settings for the Firebase-backed record store and blob storage."""

    project_id: Optional[str] = Field(None, description="Firebase/GCP project id")
    api_key: Optional[str] = Field(None, description="Firebase web API key")
    storage_bucket: Optional[str] = Field(None, description="Cloud Storage bucket name")
    id_token: Optional[str] = Field(None, description="Optional bearer token for secured rules")
    collection: str = Field("shipments", description="Firestore collection holding entries")
    timeout: float = Field(20.0, description="HTTP timeout in seconds")
    placeholder_image: str = Field("/placeholder.svg", description="Image used when resolution fails")

    model_config = ConfigDict(frozen=True)


def _get(env: Mapping[str, str], *names: str) -> Optional[str]:
    for name in names:
        val = env.get(name)
        if val and val.strip():
            return val.strip()
    return None


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from ``env`` (defaults to os.environ).

    Both plain and NEXT_PUBLIC_-prefixed Firebase variable names are accepted
    so an existing web .env file can be reused.
    """
    env = os.environ if env is None else env
    timeout_raw = _get(env, "WAREHOUSE_TIMEOUT")
    try:
        timeout = float(timeout_raw) if timeout_raw else 20.0
    except ValueError:
        timeout = 20.0
    return Settings(
        project_id=_get(env, "FIREBASE_PROJECT_ID", "NEXT_PUBLIC_FIREBASE_PROJECT_ID"),
        api_key=_get(env, "FIREBASE_API_KEY", "NEXT_PUBLIC_FIREBASE_API_KEY"),
        storage_bucket=_get(env, "FIREBASE_STORAGE_BUCKET", "NEXT_PUBLIC_FIREBASE_STORAGE_BUCKET"),
        id_token=_get(env, "FIREBASE_ID_TOKEN"),
        collection=_get(env, "WAREHOUSE_COLLECTION") or "shipments",
        timeout=timeout,
        placeholder_image=_get(env, "WAREHOUSE_PLACEHOLDER_IMAGE") or "/placeholder.svg",
    )
