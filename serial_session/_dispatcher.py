import logging

from serial_session import _device
from serial_session import _messages
from serial_session import _queues
from serial_session import _session

log = logging.getLogger("serial_session.dispatcher")


async def dispatch(
    commands: _queues.CommandQueue,
    notify: _queues.NotificationSink,
    open_fn: _session.DeviceOpener = _device.SerialDevice,
) -> None:
    """
    Handles commands while no device is open, running a SerialSession
    for each successful Open. Returns when the command stream ends.
    """

    while (command := await commands.get()) is not None:
        if isinstance(command, _messages.Open):
            config = command.config
            device = _session.open_device(open_fn, config)
            if device is None:
                log.warning("Can't open %s", config.port)
                notify(_messages.Error(_messages.OPEN_FAILED))
                continue

            log.info("Opened %s", config.port)
            session = _session.SerialSession(
                commands, notify, device, config, open_fn
            )
            if await session.run() == "exhausted":
                break
            log.info("Closed %s", config.port)
        elif isinstance(command, _messages.Write):
            log.warning("Write of %db with no port open", len(command.data))
            notify(_messages.Error(_messages.NOT_OPEN))
        elif isinstance(command, _messages.Close):
            log.debug("Close with no port open")
        else:
            raise TypeError(f"Unknown command: {command!r}")

    log.debug("Command stream ended, dispatcher exiting")
