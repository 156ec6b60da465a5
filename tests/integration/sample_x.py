"""Traced fixture code for integration tests. Line numbers are asserted."""

import threading


class X:
    def y(self):
        return (self.call1(), self.call2())

    def call1(self):
        return "call1"

    def call2(self):
        return "call2"


def run_y():
    return X().y()


def factorial(n):
    if n <= 1:
        return 1
    return n * factorial(n - 1)


def run_factorial(n):
    return factorial(n)


def numbers(limit):
    yield from range(limit)


def consume(limit):
    return sum(numbers(limit))


def fail():
    raise ValueError("boom")


def catch():
    try:
        fail()
    except ValueError:
        return "caught"


def run_fail():
    fail()


def run_in_threads(count):
    threads = [threading.Thread(target=run_y) for _ in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()


def total(xs): return sum(x * 2 for x in xs)


def apply(xs, key=lambda x: -x): return sorted(xs, key=key)


def run_one_liners():
    return total([1, 2, 3]), apply([1, 2, 3]), [total([n]) for n in (4, 5)]


def tagged(fn):
    fn.tagged = True
    return fn


@tagged
def decorated():
    return "decorated"


def run_decorated():
    return decorated()


async def leaf():
    return "leaf"


async def main_coro():
    return await leaf()


def run_async():
    import asyncio

    return asyncio.run(main_coro())
