# Namespace for pipeline steps
from .dedupe_people import DedupePeople  # noqa: F401
from .persist_people import PersistPeople  # noqa: F401
