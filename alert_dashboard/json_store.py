"""JSON-array files backing the intervention and student-action logs."""

import json
import os
from typing import Any, Dict, List, Type, TypeVar

from pydantic import BaseModel, ValidationError


M = TypeVar('M', bound=BaseModel)


class StoreError(RuntimeError):
    """A record store exists but could not be read as a JSON array."""


class JsonListStore:
    """
    A JSON array of records in one file.

    Reads are lenient: a missing file is empty, an unreadable one is reported
    and treated as empty, and malformed records are skipped. Appends are not:
    they refuse to rewrite a file they could not read, and keep malformed
    records as they were.
    """

    def __init__(self, path: str, label: str = "record store"):
        self.path = path
        self.label = label

    def load_raw(self) -> List[Any]:
        """
        Read the raw array.

        Raises:
            StoreError: If the file exists but is not a readable JSON array
        """
        if not os.path.exists(self.path):
            return []
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"Could not read {self.label} {self.path}: {e}") from e
        if not isinstance(data, list):
            raise StoreError(f"{self.label} {self.path} does not hold a JSON array")
        return data

    def load(self, model: Type[M]) -> List[M]:
        try:
            data = self.load_raw()
        except StoreError as e:
            print(f"WARNING: {e}")
            return []

        records = []
        for item in data:
            try:
                records.append(model.model_validate(item))
            except ValidationError as e:
                print(f"WARNING: Skipping malformed record in {self.label}: {e}")
        return records

    def append(self, item: Dict[str, Any]) -> None:
        data = self.load_raw()
        data.append(item)
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)
