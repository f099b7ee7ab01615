"""Session-state inference: log tailing, status classification, process correlation."""
