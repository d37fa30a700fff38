# Copyright 2025 Katteli Inc.
# TestFlows.com Open-Source Software Testing Framework (http://testflows.com)
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#      http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
import threading


class Poller:
    """Scheduled task that calls a function every interval seconds
    in a background thread.

    The task stops when the function returns True, when the function
    raises an exception, or when stop() is called. Any exception raised
    by the function is re-raised by join().
    """

    def __init__(self, interval: float, function, name: str = "poller"):
        self.interval = interval
        self.function = function
        self.exception: BaseException = None
        self.stopped = threading.Event()
        self.thread = threading.Thread(target=self.run, name=name, daemon=True)

    def run(self):
        try:
            while not self.stopped.wait(self.interval):
                if self.function():
                    break
        except BaseException as exc:
            self.exception = exc
        finally:
            self.stopped.set()

    def start(self):
        self.thread.start()
        return self

    def stop(self):
        """Signal the task to stop before the next call."""
        self.stopped.set()

    def join(self, timeout: float = None):
        """Wait for the task to stop and re-raise its exception if any."""
        self.thread.join(timeout)
        if self.exception is not None:
            raise self.exception

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc_value, exc_traceback):
        self.stop()
        self.thread.join()
