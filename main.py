from time import sleep, perf_counter

from lazyflow import Flow, RecursionMode, setup_logging

# LAZYFLOW_LOG_LEVEL=DEBUG shows every stage as it is appended
setup_logging()


def expensive_transform(x):
    # Simulate a costly step so laziness is visible
    print(f"  computing f({x}) ...")
    sleep(0.2)
    return x * x


print("\n--- Demo: laziness (no work until iterated) ---")
pipeline = (
    Flow.range(1, 10_000)
    .map(expensive_transform)
    .where(lambda v: v % 2 == 0)
    .skip(3)
    .only(5)
)

print("Constructed pipeline. No output yet (nothing computed).")
print("\nIterating (should compute only what's needed for 5 items):")
t0 = perf_counter()
out = pipeline.to_list()
t1 = perf_counter()
print(f"Result: {out}")
print(f"Time: {t1 - t0:.2f}s\n")

print("--- Demo: one element at a time ---")
stepper = Flow.range(1, 30).map(expensive_transform).where(lambda v: v % 3 == 0)
print(f"First: {stepper.fetch()}, second: {stepper.fetch()}\n")

print("--- Demo: caching (first pass computes; second pass reuses) ---")
cached = Flow.range(1, 6).map(expensive_transform).cache()
print("First pass:")
print("  ", cached.to_list())
print("Second pass (no computing lines expected):")
print("  ", cached.to_list())
print()

print("--- Demo: zipping and sorting ---")
people = Flow.combine([["ann", "bob", "cy"], [31, 25]], fields=["name", "age"])
for record in people.sort("usort", lambda a, b: len(a["name"]) - len(b["name"])).to_list():
    print("  ", record)
print()

print("--- Demo: walking a tree ---")
tree = [{"name": "root", "children": [{"name": "left"}, {"name": "right", "children": [{"name": "leaf"}]}]}]
for mode in RecursionMode:
    names = Flow(tree).recursive(lambda node: node.get("children"), mode).map(lambda node: node["name"])
    print(f"  {mode.value:>11}: {names.to_list()}")
