"""Application Insights telemetry report and alert provisioning."""
