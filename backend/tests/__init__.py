import os

# Keep the app's own engine off disk while tests import it
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

# Force SQLModel table registration at test discovery time
# This ensures all models are registered before any test database creation
from courtside.models.competition import Competition  # noqa: E402,F401
from courtside.models.match import Match  # noqa: E402,F401
from courtside.models.participant import Participant  # noqa: E402,F401
from courtside.models.rating_profile import RatingHistory, RatingProfile  # noqa: E402,F401
