from prometheus_client import Counter, CollectorRegistry

request_counter = Counter(
    "bbstatus_num_req", "Total number of requests", labelnames=["path"]
)
event_counter = Counter(
    "bbstatus_num_event", "Total number of build events", labelnames=["event"]
)

notification_counter = Counter(
    "bbstatus_notification",
    "Number of build statuses posted to Bitbucket",
    labelnames=["state"],
)

notification_skipped_counter = Counter(
    "bbstatus_notification_skipped",
    "Number of build events that did not result in a build status",
    labelnames=["reason"],
)

error_counter = Counter(
    "bbstatus_error_counter", "Total number of errors", labelnames=["context"]
)

push_registry = CollectorRegistry()

cli_notification_count = Counter(
    "bbstatus_cli_notification",
    "Number of build statuses posted from the command line",
    labelnames=["event"],
    registry=push_registry,
)
