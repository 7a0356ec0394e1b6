"""Prometheus metrics for the application"""
from prometheus_client import Counter, REGISTRY

# Distribution metrics
try:
    remote_publishes_counter = Counter(
        'clipdesk_remote_publishes_total',
        'Total number of remote publish calls made to platform adapters',
        ['platform', 'outcome']
    )
except ValueError:
    remote_publishes_counter = REGISTRY._names_to_collectors.get('clipdesk_remote_publishes_total')

try:
    remote_deletions_counter = Counter(
        'clipdesk_remote_deletions_total',
        'Total number of remote deletion calls made to platform adapters',
        ['platform', 'outcome']
    )
except ValueError:
    remote_deletions_counter = REGISTRY._names_to_collectors.get('clipdesk_remote_deletions_total')

# Workflow metrics
try:
    workflow_transitions_counter = Counter(
        'clipdesk_workflow_transitions_total',
        'Total number of video workflow transitions',
        ['transition']
    )
except ValueError:
    workflow_transitions_counter = REGISTRY._names_to_collectors.get('clipdesk_workflow_transitions_total')

try:
    approval_blocked_counter = Counter(
        'clipdesk_approval_blocked_total',
        'Total number of approvals blocked by readiness guards'
    )
except ValueError:
    approval_blocked_counter = REGISTRY._names_to_collectors.get('clipdesk_approval_blocked_total')

# Project aggregation metrics
try:
    stats_recomputations_counter = Counter(
        'clipdesk_stats_recomputations_total',
        'Total number of project stats recomputations',
        ['status']
    )
except ValueError:
    stats_recomputations_counter = REGISTRY._names_to_collectors.get('clipdesk_stats_recomputations_total')

# Background task metrics
try:
    scheduler_runs_counter = Counter(
        'clipdesk_scheduler_runs_total',
        'Total number of background task runs',
        ['task', 'status']
    )
except ValueError:
    scheduler_runs_counter = REGISTRY._names_to_collectors.get('clipdesk_scheduler_runs_total')

# Ingestion and content generation metrics
try:
    ingest_counter = Counter(
        'clipdesk_ingest_total',
        'Total number of ingestion pipeline steps by outcome',
        ['step', 'status']
    )
except ValueError:
    ingest_counter = REGISTRY._names_to_collectors.get('clipdesk_ingest_total')

try:
    content_generation_counter = Counter(
        'clipdesk_content_generation_total',
        'Total number of content generator requests',
        ['operation', 'status']
    )
except ValueError:
    content_generation_counter = REGISTRY._names_to_collectors.get('clipdesk_content_generation_total')
