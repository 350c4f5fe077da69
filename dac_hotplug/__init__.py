"""USB DAC hotplug arbitration daemon.

Keeps the playback service bound to the first usable USB audio output and
re-binds it when DACs are plugged in or pulled out.

- udev rules write ``add vvvv:pppp`` / ``remove`` lines into a FIFO owned by the daemon
- the arbiter consumes those lines one at a time and drives service/udev/config side effects
"""
