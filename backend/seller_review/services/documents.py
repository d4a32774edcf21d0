"""Document completeness tagging.

Works only on presence flags supplied by the document store. File contents
are never opened or checked here.
"""
from pydantic import BaseModel

from seller_review.schemas.approval import DocumentCompleteness


class DocumentPresence(BaseModel):
    business_license: bool = False
    tax_certificate: bool = False
    registration_number: bool = False
    bank_document: bool = False
    government_id: bool = False
    proof_of_address: bool = False

    @classmethod
    def from_urls(cls, **urls: str | None) -> "DocumentPresence":
        """Build flags from document URLs/values; blank or missing means absent."""
        return cls(**{k: bool(v and v.strip()) for k, v in urls.items()})


def document_completeness(presence: DocumentPresence) -> DocumentCompleteness:
    """complete needs license, tax certificate and registration number;
    either document alone is partial."""
    if presence.business_license and presence.tax_certificate and presence.registration_number:
        return DocumentCompleteness.complete
    if presence.business_license or presence.tax_certificate:
        return DocumentCompleteness.partial
    return DocumentCompleteness.missing
