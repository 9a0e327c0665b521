"""Shared thresholds for every analyzer.

The histogram scorer, label classifier, scrape analyzer and recommendation
engine all read their constants from here so the same label or metric is
never judged against two different numbers. Values are hand-tuned; several
coincide (1_000 appears for both label classification and label findings)
and are kept as separate names so either can move independently.
"""

# Substrings that mark a label as carrying ephemeral identifiers. Matched as
# case-insensitive substrings, not words: "rapid" matches "id".
DYNAMIC_LABEL_PATTERNS: tuple[str, ...] = (
    "url",
    "path",
    "uri",
    "id",
    "uuid",
    "uid",
    "session",
    "request_id",
    "pod",
    "pid",
    "container_id",
    "trace_id",
    "span_id",
)

# ── Label classifier ──────────────────────────────────────────────────────────
LABEL_HIGH_CARDINALITY = 1_000       # unique values, strict >

# ── Histogram scorer ──────────────────────────────────────────────────────────
BUCKET_SUFFIX = "_bucket"
SUM_SUFFIX = "_sum"
COUNT_SUFFIX = "_count"
HISTOGRAM_RISK_SERIES_UNIT = 1_000   # bucket series per factor unit
HISTOGRAM_RISK_BUCKET_UNIT = 10      # buckets per series per factor unit
HISTOGRAM_RISK_WEIGHT = 5
HISTOGRAM_RISK_CAP = 100
HISTOGRAM_RISK_CRITICAL = 70         # strict >
HISTOGRAM_RISK_MODERATE = 40         # strict >

# ── Recommendation rules ──────────────────────────────────────────────────────
METRIC_SERIES_HIGH = 10_000
METRIC_SERIES_CRITICAL = 50_000
BUCKET_SERIES_HIGH = 5_000
BUCKET_SERIES_CRITICAL = 20_000
DYNAMIC_LABEL_MODERATE = 100
DYNAMIC_LABEL_HIGH = 1_000
DYNAMIC_LABEL_CRITICAL = 10_000

# ── Scrape intervals (seconds) ────────────────────────────────────────────────
FAST_SCRAPE_SECONDS = 15             # strict <
VERY_FAST_SCRAPE_SECONDS = 5         # strict <

# ── Multiplier tree badges ────────────────────────────────────────────────────
MULTIPLIER_EXPLOSION = 100
MULTIPLIER_HIGH = 20
MAX_SAMPLE_VALUES = 5
MAX_SAFE_INTEGER = 2**53 - 1

# ── Overview and churn ────────────────────────────────────────────────────────
TOTAL_SERIES_CRITICAL = 1_000_000
TOTAL_SERIES_MODERATE = 500_000
HEAD_SERIES_CRITICAL = 2_000_000
HEAD_SERIES_MODERATE = 500_000
HEAD_CHUNKS_CRITICAL = 10_000_000
HEAD_CHUNKS_MODERATE = 3_000_000
NET_CHURN_CRITICAL = 10             # series per second, strict >
NET_CHURN_MODERATE = 1              # series per second, strict >
TOP_METRICS = 10
TOP_LABELS = 15
TOP_LABEL_VALUE_PAIRS = 20

# ── What-if simulator ─────────────────────────────────────────────────────────
# Share of total series assumed to carry any given label. Rough estimate,
# disclosed as such to users.
LABEL_DROP_AFFECTED_SHARE = 0.1
MAX_PERCENT_REDUCTION = 99
