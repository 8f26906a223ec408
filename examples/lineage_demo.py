"""
Example: Releasing Intermediate Arrays by Lineage

Demonstrates:
1. Build a small computation and inspect what each result depends on
2. Release every intermediate with dispose_deps()
3. Keep selected inputs alive with dispose_deps_except()
4. Dispose a whole block of work with ResourceScope
"""

import ndlineage as nd
from ndlineage.core import engine


def show(label, arr):
    print(f"  {label}: handle={arr.handle} deps={sorted(arr.dependencies)}")


def lineage_basics():
    print("=" * 70)
    print("STEP 1: Recording lineage")
    print("=" * 70)

    a = nd.ones((2, 2))
    b = nd.full((2, 2), 2.0)
    c = nd.full((2, 2), 3.0)
    ab = a * b
    res = ab + c

    for label, arr in (("a", a), ("b", b), ("c", c), ("ab", ab), ("res", res)):
        show(label, arr)
    print(f"\nLive handles: {engine.live_handles()}")

    print("\n" + "=" * 70)
    print("STEP 2: dispose_deps()")
    print("=" * 70)
    res.dispose_deps()
    print(f"  a disposed: {a.is_disposed}, ab disposed: {ab.is_disposed}")
    print(f"  res is still usable:\n{res}")
    print(f"\nLive handles: {engine.live_handles()}")


def keep_weights():
    print("\n" + "=" * 70)
    print("STEP 3: dispose_deps_except()")
    print("=" * 70)

    weight = nd.array([[0.5, -1.0], [2.0, 0.0]])
    x = nd.arange(4).reshape(2, 2)
    hidden = nd.maximum(x * weight, 0)
    out = hidden + 1

    out.dispose_deps_except(weight)
    print(f"  weight disposed: {weight.is_disposed}")
    print(f"  x disposed: {x.is_disposed}, hidden disposed: {hidden.is_disposed}")
    print(f"  out deps: {sorted(out.dependencies)} (weight={weight.handle})")


def scoped_work():
    print("\n" + "=" * 70)
    print("STEP 4: ResourceScope")
    print("=" * 70)

    before = engine.live_handles()
    with nd.ResourceScope() as scope:
        a = nd.ones((3,))
        b = a * 4
        total = scope.keep(b - 1)
    print(f"  kept: {total.tolist()}")
    print(f"  handles added by the block: {engine.live_handles() - before}")


if __name__ == "__main__":
    lineage_basics()
    keep_weights()
    scoped_work()
