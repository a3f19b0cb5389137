import tzlocal

import datetime
import enum
import logging
import threading
import time

from errors import DecodeError, NoEligibleIndicesError, TransportError
from indices import eligible_indices


class State(enum.Enum):
    IDLE     = 'idle'
    CHECKING = 'checking'
    RETIRING = 'retiring'
    WAITING  = 'waiting'
    BACKOFF  = 'backoff'


class Retirer(threading.Thread):
    """Deletes the oldest dated index, one at a time, while free space is low.

    Each call to step() performs one transition:

        IDLE     -> CHECKING                on a tick (or at start)
        CHECKING -> WAITING                 free percent above threshold
        CHECKING -> RETIRING                free percent at or below threshold
        RETIRING -> CHECKING                after one index is deleted, no wait
        WAITING  -> IDLE                    when the next tick is due
        any      -> BACKOFF -> CHECKING     on a cluster error, after cooldown

    `stopped` is the cancellation token, any wait returns early once it is
    set. `clock` is the monotonic time source the tick schedule is built on.
    """

    def __init__(self, cluster, threshold, interval, skip=(), aggregate='min', cooldown=60,
                 stopped=None, clock=time.monotonic):
        threading.Thread.__init__(self)
        self.daemon = False
        self.name = 'Retirer'

        self.cluster   = cluster
        self.threshold = threshold
        self.interval  = interval
        self.skip      = tuple(skip)
        self.aggregate = aggregate
        self.cooldown  = cooldown

        self.state   = State.IDLE
        self.checks  = 0
        self.errors  = 0
        self.retired = []

        self.__stopped = stopped if stopped is not None else threading.Event()
        self.__clock = clock
        self.__next_tick = None

        self.__handlers = {
            State.IDLE:     self.__idle,
            State.CHECKING: self.__checking,
            State.RETIRING: self.__retiring,
            State.WAITING:  self.__waiting,
            State.BACKOFF:  self.__backoff,
        }


    def __idle(self):
        if self.__next_tick is None:
            self.__next_tick = self.__clock() + self.interval
        logging.info('checking')
        return State.CHECKING


    def __checking(self):
        percent = self.cluster.free_space_percent(self.aggregate)
        self.checks += 1

        if percent > self.threshold:
            logging.info('free data space enough (%d%% > %d%%)', percent, self.threshold)
            logging.info('done checking')
            return State.WAITING

        logging.warning('free data space low (%d%% <= %d%%), deleting oldest index', percent, self.threshold)
        return State.RETIRING


    def __retiring(self):
        candidates = eligible_indices(self.cluster.aliases(), self.skip)
        index = candidates[0]
        logging.info('oldest of %d eligible indices is %s', len(candidates), index)

        self.cluster.delete_index(index)
        self.retired += [index]
        return State.CHECKING


    def __waiting(self):
        now = self.__clock()

        if self.__next_tick > now:
            delay = self.__next_tick - now
            due = datetime.datetime.now(tz=tzlocal.get_localzone()) + datetime.timedelta(seconds=delay)
            logging.info('next check at %s', due.isoformat(timespec='seconds'))

            self.__stopped.wait(delay)
            self.__next_tick += self.interval
        else:
            # Overran one or more ticks, check again right away but only once
            missed = int((now - self.__next_tick) // self.interval) + 1
            logging.warning('check overran %d tick(s)', missed)
            self.__next_tick += missed * self.interval

        return State.IDLE


    def __backoff(self):
        logging.info('retrying in %d secs', self.cooldown)
        self.__stopped.wait(self.cooldown)
        return State.CHECKING


    def step(self):
        handler = self.__handlers[self.state]
        try:
            self.state = handler()
        except (TransportError, DecodeError, NoEligibleIndicesError) as e:
            logging.error('error %s: %s', self.state.value, e)
            self.errors += 1
            self.state = State.BACKOFF
        except Exception:
            logging.exception('unexpected error %s', self.state.value)
            self.errors += 1
            self.state = State.BACKOFF

        return self.state


    def run(self):
        logging.info('threshold %d%%, interval %s secs, skipping %s',
                     self.threshold, self.interval, ', '.join(self.skip) or 'nothing')

        while not self.__stopped.is_set():
            self.step()

        logging.info('stats: checks = %d, errors = %d, retired = %d', self.checks, self.errors, len(self.retired))


    def stop(self):
        self.__stopped.set()
