# scripts/demo_hello.py
"""Hello-world publisher: a function, a method and a closure on one signal.

    python scripts/demo_hello.py
    OBJSLOTS_PARALLEL=1 python scripts/demo_hello.py
"""
import argparse
import time

from objslots.core import log
from objslots.core.emitter import SignalEmitter
from objslots.core.metrics import force_emit
from objslots.core.signal import Signal, signal


class Greeter(SignalEmitter):
    hello = Signal(str)

    @signal
    def other(self):
        """Argument-less signal."""

    def __call__(self, message: str) -> None:
        self.hello(message)


def on_hello(message: str) -> None:
    print(f"Function: {message}")


def on_other() -> None:
    print("Other signal")


class Listener:
    def on_hello(self, message: str) -> None:
        print(f"Method: {message}")


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--message", default="Hello World")
    ap.add_argument("--metrics", action="store_true", help="log a metrics snapshot at the end")
    args = ap.parse_args()

    log.setup()
    lg = log.get("demo")

    greeter = Greeter()
    listener = Listener()

    def lam(message: str) -> None:
        print(f"Lambda: {message}")

    greeter.bind(Greeter.hello, on_hello)
    greeter.bind(Greeter.hello, listener, Listener.on_hello)
    greeter.bind(Greeter.other, on_other)
    greeter.bind(Greeter.hello, lam, key=lam)

    lg.info("dispatch mode: %s", Greeter.dispatch_config())
    greeter(args.message)
    greeter.other()

    greeter.unbind(on_hello)
    greeter.unbind(listener, Listener.on_hello)
    greeter.unbind(on_other)
    greeter.unbind(lam)
    greeter(args.message)  # nothing bound any more

    if Greeter.dispatch_config().parallel:
        time.sleep(0.2)  # let detached workers print
    if args.metrics:
        force_emit()
    greeter.close()


if __name__ == "__main__":
    main()
