# Environment-aware defaults
import os

# Snapshot date of the source data. Anyone still alive / still active on this
# date is censored. Override with HOF_AS_OF_DATE (YYYY-MM-DD).
DEFAULT_AS_OF_DATE = os.environ.get('HOF_AS_OF_DATE', '2021-12-02').strip()

# Sanity ceiling for a computed age when no death date is on record
AGE_SANITY_CEILING_YEARS = float(os.environ.get('HOF_AGE_SANITY_CEILING', '110'))

# A player is considered retired once the last game is this many years old
RETIREMENT_INACTIVITY_YEARS = float(os.environ.get('HOF_RETIREMENT_INACTIVITY_YEARS', '2'))

# Partial date imputation
YEAR_ONLY_IMPUTE_MONTH = 6
YEAR_ONLY_IMPUTE_DAY = 30
MONTH_ONLY_IMPUTE_DAY = 15

# Height parsing ("FEET-INCHES")
MAX_PLAUSIBLE_FEET = 7

# BMI from pounds and inches
BMI_IMPERIAL_FACTOR = 703

# Alive-at-induction rule: death_year > index_year when strict,
# death_year >= index_year otherwise
ALIVE_AT_INDEX_STRICT = os.environ.get('HOF_ALIVE_AT_INDEX_STRICT', '1').strip() != '0'

# Files and directories
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
DEFAULT_CORRECTIONS_PATH = os.environ.get(
    'HOF_CORRECTIONS_PATH', os.path.join(PROJECT_ROOT, 'config', 'record_corrections.csv')
)
DEFAULT_OUTPUT_DIR = os.environ.get('HOF_OUTPUT_DIR', 'outputs')
DEFAULT_STATE_DIR = os.environ.get('HOF_STATE_DIR', os.path.join('outputs', 'pipeline-status'))
DEFAULT_LOG_DIR = os.environ.get('HOF_LOG_DIR', 'logs')

# Duration types emitted per subject
DURATION_LIFETIME = 'lifetime'
DURATION_CAREER = 'career'
DURATION_RETIREMENT_AGE = 'retirement_age'
DURATION_TYPES = [DURATION_LIFETIME, DURATION_CAREER, DURATION_RETIREMENT_AGE]

# Event status labels
STATUS_DIED = 'died'
STATUS_CENSORED = 'censored'
STATUS_RETIRED = 'retired'
STATUS_ACTIVE = 'active'
STATUS_UNKNOWN = 'unknown'

# Reasons an observation could not be computed
REASON_PARSE_FAILURE = 'parse_failure'
REASON_SANITY_BOUND = 'sanity_bound'
REASON_AMBIGUOUS_EVENT = 'ambiguous_event'

# Handedness
HAND_LEFT = 'Left'
HAND_RIGHT = 'Right'
HAND_BOTH = 'Both'
HAND_UNKNOWN = 'Unknown'
HAND_CODES = {
    'L': HAND_LEFT, 'LEFT': HAND_LEFT,
    'R': HAND_RIGHT, 'RIGHT': HAND_RIGHT,
    'B': HAND_BOTH, 'S': HAND_BOTH, 'BOTH': HAND_BOTH, 'SWITCH': HAND_BOTH,
}

# Hall of Fame membership
HOF_IN = 'In'
HOF_OUT = 'Out'
HOF_IN_CODES = {'IN', 'Y', 'YES', 'TRUE', '1', 'HOF', 'HOFP'}

# Canonical raw columns produced by the loaders
DATE_FIELDS = ['birth_date', 'death_date', 'career_start_date', 'career_end_date']

# Location fields whose presence implies the person has died
DEATH_CONTEXT_FIELDS = [
    'death_city', 'death_state', 'death_country',
    'cemetery', 'cemetery_city', 'cemetery_state', 'cemetery_country',
]

BIRTHPLACE_FIELDS = ['birth_city', 'birth_state', 'birth_country']

RAW_COLUMNS = (
    ['subject_id'] + DATE_FIELDS
    + ['height', 'weight', 'bats', 'throws', 'hall_of_fame', 'induction_year']
    + DEATH_CONTEXT_FIELDS + BIRTHPLACE_FIELDS
    + ['seasons', 'primary_position']
)
REQUIRED_RAW_COLUMNS = ['subject_id', 'birth_date']

# Fields a correction table row may target
CORRECTABLE_FIELDS = set(RAW_COLUMNS) - {'subject_id'}

# Covariates carried onto emitted survival rows when present
DEFAULT_COVARIATES = ['bmi', 'seasons']
