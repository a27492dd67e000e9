"""
Centralized thresholds -- single source of truth.

All tunable values used by the severity engine, duplicate detection, merge
and trust scoring are defined here. Services import these constants instead
of hard-coding magic numbers.

The values serve as defaults; the settings service can override them at
runtime from the environment.
"""

# ---------------------------------------------------------------------------
# SLA timeframes (hours from report time to deadline, per severity)
# ---------------------------------------------------------------------------

SEVERITY_TIMEFRAME_HOURS = {
    "Low": 168,       # 7 days
    "Medium": 120,    # 5 days
    "High": 72,       # 3 days
    "Critical": 24,   # 1 day
}

# Used when a severity has no timeframe entry
FALLBACK_TIMEFRAME_HOURS = 24

# Stored deadlines within this window of the computed one are left alone
DEADLINE_DRIFT_TOLERANCE_HOURS = 1.0

# ---------------------------------------------------------------------------
# Incident-type catalog
# ---------------------------------------------------------------------------

# Process-local catalog cache lifetime
INCIDENT_TYPE_CACHE_TTL_SECONDS = 5 * 60

# Separators between several types in one incidentType string
INCIDENT_TYPE_SEPARATORS = r"[,;/]"

# ---------------------------------------------------------------------------
# Duplicate detection
# ---------------------------------------------------------------------------

# Max great-circle distance (meters) for a duplicate candidate
DUPLICATE_MAX_DISTANCE_METERS = 100.0

# Below this distance a report qualifies regardless of type/description
DUPLICATE_PROXIMITY_OVERRIDE_METERS = 20.0

# Share of the shorter description's words that must match (percent)
DESCRIPTION_MATCH_PERCENT = 30.0

# Words of this length or shorter are ignored for word overlap
DESCRIPTION_MIN_WORD_LENGTH = 3

# ---------------------------------------------------------------------------
# Reporter trust
# ---------------------------------------------------------------------------

TRUST_BASE_SCORE = 10
TRUST_VERIFIED_POINTS = 5
TRUST_VERIFIED_CAP = 50
TRUST_ACCURACY_POINTS = 20
TRUST_TENURE_DAYS_PER_POINT = 30
TRUST_TENURE_CAP = 10
TRUST_FALSE_REPORT_PENALTY = 10
TRUST_PENALTY_FLOOR = 5

# Flat bonus added on top of the formula for each completed incident
TRUST_COMPLETION_BONUS = 10

# Seed values for reporters created by a trust event
TRUST_SEED_ON_VERIFICATION = 15
TRUST_SEED_ON_FALSE_REPORT = 5

# Label thresholds (inclusive lower bounds)
TRUST_LEVELS = {
    "New": 0,
    "Basic": 20,
    "Reliable": 50,
    "Trusted": 80,
    "Verified": 100,
}

# Priority base per severity
SEVERITY_PRIORITY_BASE = {
    "Low": 10,
    "Medium": 30,
    "High": 60,
    "Critical": 90,
}
