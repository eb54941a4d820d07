from .person import Person
from .challenge import Challenge, ChallengeType, ChallengeState
from .challenge_team import ChallengeTeam
from .challenge_participant import ChallengeParticipant
from .daily_summary import ChallengeParticipantDailySummary, total_seconds_from_payload
from .poller_state import PollerState, HEARTBEAT_WATERMARK_KEY

# Export all models
__all__ = [
    'Person',
    'Challenge',
    'ChallengeType',
    'ChallengeState',
    'ChallengeTeam',
    'ChallengeParticipant',
    'ChallengeParticipantDailySummary',
    'total_seconds_from_payload',
    'PollerState',
    'HEARTBEAT_WATERMARK_KEY'
]
