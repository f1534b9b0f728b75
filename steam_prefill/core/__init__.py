"""
Core prefill engine.

The `PrefillManager` acts as the high-level run coordinator, delegating each
individual app to the `AppPipeline`. `BenchmarkCapture` reuses the same
pipeline to build benchmark workloads in parallel.
"""
