from pydantic import BaseModel
from typing import Optional

# Signer fields are checked by the lifecycle module so that missing values
# come back as a ValidationError with the offending field names.

class OrgSignRequest(BaseModel):
    signer_name: Optional[str] = None
    signer_title: Optional[str] = None
    signer_email: Optional[str] = None
    consent: bool = False

class CountersignRequest(BaseModel):
    signer_name: Optional[str] = None
    signer_title: Optional[str] = None

class VoidRequest(BaseModel):
    reason: Optional[str] = None

class TemplatePublish(BaseModel):
    body_text: str
    name: Optional[str] = None
    vendor_legal_name: Optional[str] = None
    vendor_contact_email: Optional[str] = None
    version: Optional[int] = None
