"""Field-by-field conflict detection between client and server copies."""

from typing import Any, Callable, Optional

Comparator = Callable[[Any, Any], bool]


def _normalize(value: Any) -> Any:
    """Strip strings the way payload validation does before they are stored."""
    return value.strip() if isinstance(value, str) else value


def scalar_differs(client_value: Any, server_value: Any) -> bool:
    """Equality after stripping surrounding whitespace from strings."""
    return _normalize(client_value) != _normalize(server_value)


def unordered_list_differs(client_value: Any, server_value: Any) -> bool:
    """Compare lists as multisets; ["a", "b"] and ["b", "a"] are the same."""
    if not isinstance(client_value, list) or not isinstance(server_value, list):
        return scalar_differs(client_value, server_value)
    client_items = [_normalize(v) for v in client_value]
    server_items = [_normalize(v) for v in server_value]
    return sorted(client_items, key=repr) != sorted(server_items, key=repr)


# Comparable fields in reporting order, one comparator each.
# A new content column on Record needs an entry here to take part in conflicts.
COMPARABLE_FIELDS: dict[str, Comparator] = {
    "name": scalar_differs,
    "title": scalar_differs,
    "company": scalar_differs,
    "phone": scalar_differs,
    "email": scalar_differs,
    "website": scalar_differs,
    "interests": unordered_list_differs,
    "notes": scalar_differs,
}


class ConflictDetector:
    """Diffs a client payload against the current server record."""

    def __init__(self, fields: Optional[dict[str, Comparator]] = None):
        self.fields = fields if fields is not None else COMPARABLE_FIELDS

    def diff(self, client_data: Optional[dict[str, Any]], server_data: dict[str, Any]) -> list[str]:
        """
        Return the names of fields where the client disagrees with the server.

        Fields the client did not send are left out: an absent key means the
        client had no intention of changing that field.
        """
        if not client_data:
            return []

        conflict_fields = []
        for field, differs in self.fields.items():
            if field not in client_data:
                continue
            if differs(client_data[field], server_data.get(field)):
                conflict_fields.append(field)
        return conflict_fields
