import re

from sqlalchemy import event

from .models import Property, UserProfile


@event.listens_for(Property, "before_insert")
@event.listens_for(Property, "before_update")
def normalize_listing_text(mapper, connection, target: Property):
    if target.title:
        target.title = " ".join(target.title.split())
    if target.postal_code:
        digits = re.sub(r"\D", "", target.postal_code)
        target.postal_code = f"{digits[:5]}-{digits[5:]}" if len(digits) == 8 else digits


@event.listens_for(UserProfile, "before_insert")
@event.listens_for(UserProfile, "before_update")
def normalize_contact_fields(mapper, connection, target: UserProfile):
    if target.email:
        target.email = target.email.strip().lower()
    if target.cpf:
        target.cpf = re.sub(r"\D", "", target.cpf) or None
