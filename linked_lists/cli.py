"""
linked-lists command line tool

Usage:
    linked-lists --emit-ir                 # Print the runtime's LLVM IR
    linked-lists -o runtime.o              # Compile the runtime to an object file
    linked-lists --benchmark [--count N]   # Compare against a Python list
    linked-lists --benchmark --trace-level 1
"""

import sys
import argparse
import time
from typing import Callable, Dict

from linked_lists.codegen.core import RuntimeGenerator, RuntimeBuildError
from linked_lists.diagnostics import HeapDiagnostics
from linked_lists.heap import Heap
from linked_lists.linked_list import LinkedList


def _time(fn: Callable[[], None], rounds: int) -> float:
    """Best wall time of `rounds` runs, in seconds."""
    best = None
    for _ in range(rounds):
        start = time.perf_counter()
        fn()
        elapsed = time.perf_counter() - start
        if best is None or elapsed < best:
            best = elapsed
    return best


def run_benchmarks(count: int, heap: Heap, rounds: int = 3) -> Dict[str, tuple]:
    """Time each operation `count` times on a Python list and a LinkedList.

    Returns {operation: (python_list_seconds, linked_list_seconds)}.
    """
    def list_filled():
        lst = LinkedList(heap)
        for i in range(count):
            lst.prepend(i)
        return lst

    def bench_append():
        lst = LinkedList(heap)
        for i in range(count):
            lst << i

    def bench_prepend():
        lst = LinkedList(heap)
        for i in range(count):
            lst >> i

    def bench_shift():
        lst = list_filled()
        for _ in range(count):
            lst.shift()

    def bench_pop():
        lst = list_filled()
        for _ in range(count):
            lst.pop()

    def array_append():
        ary = []
        for i in range(count):
            ary.append(i)

    def array_prepend():
        ary = []
        for i in range(count):
            ary.insert(0, i)

    def array_shift():
        ary = list(range(count))
        for _ in range(count):
            ary.pop(0)

    def array_pop():
        ary = list(range(count))
        for _ in range(count):
            ary.pop()

    cases = {
        "append": (array_append, bench_append),
        "prepend": (array_prepend, bench_prepend),
        "shift": (array_shift, bench_shift),
        "pop": (array_pop, bench_pop),
    }
    results = {}
    for name, (baseline, candidate) in cases.items():
        results[name] = (_time(baseline, rounds), _time(candidate, rounds))
        heap.collect()
    return results


def print_benchmarks(results: Dict[str, tuple], count: int):
    print(f"Operations per run: {count}")
    for name, (baseline, candidate) in results.items():
        ratio = candidate / baseline if baseline else float("inf")
        print(f"  list.{name:<8} {baseline * 1000:10.3f} ms")
        print(f"  LinkedList#{name:<8} {candidate * 1000:6.3f} ms - {ratio:.2f}x")


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Native linked list runtime",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --emit-ir                 Print LLVM IR
  %(prog)s -o runtime.o              Compile the runtime to runtime.o
  %(prog)s --benchmark --count 1000  Run the micro-benchmarks
        """
    )

    parser.add_argument("--emit-ir", action="store_true",
                        help="Print the runtime LLVM IR to stdout")
    parser.add_argument("-o", "--output",
                        help="Compile the runtime to this object file")
    parser.add_argument("--benchmark", action="store_true",
                        help="Benchmark LinkedList against a Python list")
    parser.add_argument("--count", type=int, default=1000,
                        help="Operations per benchmark run (default: 1000)")
    parser.add_argument("--trace-level", type=int, default=Heap.TRACE_NONE,
                        choices=range(Heap.TRACE_NONE, Heap.TRACE_ALL + 1),
                        help="Collector trace level for --benchmark (0-4)")

    args = parser.parse_args(argv)

    if not (args.emit_ir or args.output or args.benchmark):
        parser.print_help()
        return 0

    try:
        if args.emit_ir:
            print(RuntimeGenerator().get_ir())

        if args.output:
            print(f"Compiling runtime to {args.output}...")
            RuntimeGenerator().compile_to_object(args.output)
            print(f"Successfully compiled to {args.output}")

        if args.benchmark:
            with Heap(trace_level=args.trace_level) as heap:
                results = run_benchmarks(args.count, heap)
                print_benchmarks(results, args.count)
                if args.trace_level > Heap.TRACE_NONE:
                    HeapDiagnostics(heap).dump_stats()
    except RuntimeBuildError as e:
        print(f"Runtime build failed: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Internal error: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return 2

    return 0


if __name__ == "__main__":
    sys.exit(main())
