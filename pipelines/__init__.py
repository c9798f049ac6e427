"""
Pipelines — Kubeflow Pipelines (KFP v2) wiring for GitLab ingestion.

The component runs the ``gitlab_rag`` ingest inside its own container;
the pipeline exposes its settings as run parameters.
"""
