"""
Erreurs métier des services storeroom.

La couche HTTP les traduit en codes de statut (storeroom.app.main) ;
les services ne lèvent jamais HTTPException eux-mêmes.
"""

from __future__ import annotations


class StoreError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"detail": self.message}


class ValidationError(StoreError):
    """Champ manquant/invalide ou quantité <= 0."""

    status_code = 400


class NotFound(StoreError):
    status_code = 404


class Conflict(StoreError):
    """Opération interdite dans le statut courant de la demande."""

    status_code = 409


class InsufficientStock(StoreError):
    status_code = 400

    def __init__(self, component_id: int, available: int, requested: int | None = None):
        self.component_id = component_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Requested quantity exceeds available stock for component {component_id} "
            f"(available={available})"
        )

    def to_dict(self) -> dict:
        return {
            "detail": self.message,
            "component_id": self.component_id,
            "available": self.available,
            "requested": self.requested,
        }


class PersistenceFailure(StoreError):
    """Commit impossible : rien n'a été écrit."""

    status_code = 503
