"""Host-level collaborators: kernel limits, disks, distribution and systemd."""
