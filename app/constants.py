"""Enumerations and French display labels shared by intake, AI copy, PDF and email."""

from enum import Enum


class PropertyType(str, Enum):
    APPARTEMENT = "appartement"
    MAISON = "maison"

    @classmethod
    def parse(cls, value: str | None) -> "PropertyType | None":
        """Return the member for a form value, accepting English aliases."""
        if not value:
            return None
        normalized = PROPERTY_TYPE_ALIASES.get(value.strip().lower(), value.strip().lower())
        try:
            return cls(normalized)
        except ValueError:
            return None


class TargetBuyer(str, Enum):
    JEUNE_FAMILLE = "jeune_famille"
    PROFESSIONNEL = "professionnel"
    RETRAITE = "retraite"
    INVESTISSEUR = "investisseur"
    PREMIER_ACHETEUR = "premier_acheteur"
    FAMILLE_MULTIGENERATIONNELLE = "famille_multigenerationnelle"


PROPERTY_TYPE_ALIASES = {
    "apartment": PropertyType.APPARTEMENT.value,
    "house": PropertyType.MAISON.value,
}

PROPERTY_TYPE_LABELS = {
    PropertyType.APPARTEMENT: "Appartement",
    PropertyType.MAISON: "Maison",
}

TARGET_BUYER_LABELS = {
    TargetBuyer.JEUNE_FAMILLE: "Jeune famille",
    TargetBuyer.PROFESSIONNEL: "Professionnel",
    TargetBuyer.RETRAITE: "Retraité",
    TargetBuyer.INVESTISSEUR: "Investisseur",
    TargetBuyer.PREMIER_ACHETEUR: "Premier acheteur",
    TargetBuyer.FAMILLE_MULTIGENERATIONNELLE: "Famille multigénérationnelle",
}

ALLOWED_PHOTO_TYPES = ["image/jpeg", "image/jpg", "image/png", "image/webp"]
ALLOWED_LOGO_TYPES = ALLOWED_PHOTO_TYPES + ["image/svg+xml"]

REQUIRED_FIELDS = ["agentEmail", "propertyType", "address", "price", "targetBuyer"]
OPTIONAL_FIELDS = ["roomCount", "livingArea", "constructionYear", "keyPoints", "propertyDescription"]

FRENCH_MONTHS = [
    "janvier", "février", "mars", "avril", "mai", "juin",
    "juillet", "août", "septembre", "octobre", "novembre", "décembre",
]
