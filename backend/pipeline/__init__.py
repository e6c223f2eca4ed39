# Pipeline
# ========
# Payment confirmation and form submission pipelines. Import the submodules
# directly: pipeline.errors, pipeline.orchestrator, pipeline.agents.
