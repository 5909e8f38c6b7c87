from app import db
from app.models import Event


def dao_add_event(event: dict) -> Event:
    """
    Given a dictionary of event data like . . .

    {'event_type': 'merchant_app_encrypted', 'data': {'merchant_application_id': '...', 'field_paths': [...]}}

    . . . add a new Event instance to the current session without committing it, so the event commits or rolls back
    with the change it describes.  Field paths and record ids belong in the data; plaintext and ciphertext never do.
    """

    event_instance = Event(**event)
    db.session.add(event_instance)
    return event_instance
