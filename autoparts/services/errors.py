"""Erreurs métier levées par les services et traduites en réponses HTTP par les routeurs."""


class ServiceError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequest(ServiceError):
    status_code = 400


class InvalidInvoiceItem(ServiceError):
    """Ligne de facture inutilisable, détectée pendant l'écriture: toute la facture est annulée."""

    def __init__(self, index: int, message: str):
        super().__init__(f"Ligne {index + 1}: {message}")
        self.index = index


class NotFound(ServiceError):
    status_code = 404
