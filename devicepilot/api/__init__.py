"""HTTP sub-clients for the DevicePilot API."""
