# voicebird

Voice gateway connection state and audio input streams for voice chat bots,
built on asyncio and the standard library alone.

## What it offers

- **Gateway handling**: a `VoiceManager` (in `voicebird.manager`) that maps
  guilds to `Call` handlers, sends op-4 voice-state updates through registered
  shard senders (buffering them while a shard is disconnected), and gathers the
  session, endpoint and token a voice server needs into a `ConnectionInfo`.
- **Audio inputs**: an `Input` (in `voicebird.input.source`) that reads raw
  float PCM, i16 PCM or DCA-framed Opus byte streams as little-endian float PCM,
  mixes them into 20 ms stereo frames and seeks by byte position or time.
- **Caching**: `Memory` (in `voicebird.input.cached`) keeps an input's bytes in
  memory so that several handles can share and seek them.
- **Metadata**: `Metadata.from_ffprobe_json` and `Metadata.from_ytdl_output`
  turn already-parsed JSON from those tools into a `Metadata` record.

## Installing

```
pip install voicebird
```

To run the tests:

```
pip install "voicebird[test]"
pytest
```

## Joining a voice channel through the gateway

```python
import asyncio

from voicebird.manager import VoiceManager
from voicebird.shards import Sharder


async def main():
    outbound = asyncio.Queue()

    manager = VoiceManager(Sharder(), gateway_timeout=10.0)
    manager.initialise_client_data(shard_count=1, user_id=1234)
    manager.register_shard(0, outbound.put_nowait)

    joining = asyncio.create_task(manager.join_gateway(guild_id=42, channel_id=7))

    # Your gateway client sends the queued op-4 payloads, then passes the
    # voice events it receives back in:
    await asyncio.sleep(0)
    await manager.state_update(42, 1234, "session", 7)
    await manager.server_update(42, "voice.example.com", "token")

    call, info = await joining
    print(info.endpoint, info.session_id)


asyncio.run(main())
```

`state_update` ignores events for users other than the one given to
`initialise_client_data`; a `None` channel means the bot was disconnected and
clears the call's connection.

Errors live in `voicebird.join` and derive from `JoinError`:

- The awaitable returned by `Call.join_gateway` raises `TimedOutError` if no
  answer arrives within the call's `gateway_timeout`, and `DroppedError` if the
  join is superseded or abandoned.
- `VoiceManager.join_gateway` reports any such failure as `DroppedError`; the
  call stays available through `VoiceManager.get`.
- `VoiceManager.leave` and `VoiceManager.remove` raise `NoCallError` for a guild
  that has no call.
- A `Call` made with `Call.standalone(...)` has no shard. `mute`, `deafen`,
  `leave` and `join_gateway` update its local state and then raise
  `NoSenderError`; feed it gateway events with `update_state` and
  `update_server`.

## Reading audio

```python
from voicebird.input.codec import Codec, CodecType
from voicebird.input.container import RawContainer
from voicebird.input.reader import Reader
from voicebird.input.source import Input

pcm_bytes = bytes(3840)
source = Input(
    stereo=True,
    reader=Reader.from_memory(pcm_bytes),
    codec=Codec.from_type(CodecType.PCM),
    container=RawContainer(),
    metadata=None,
)
floats = source.read_all()  # little-endian f32 samples
```

`Input.mix(buffer, volume)` adds one 20 ms frame of audio into a list of 1920
stereo floats (mono sources go to both channels) and returns the number of
bytes of the buffer filled. `Input.seek_time(seconds)` moves to a timestamp and
returns the time reached, or `None` when the reader cannot seek there.
`Reader.from_file` accepts a path or an open binary file.

For DCA-framed Opus, use `DcaContainer(first_frame=...)` with an Opus codec.
`Input.read_opus_frame()` returns each frame's bytes without decoding. Decoding
to PCM needs an object with `decode_float(packet)` and `reset_state()` set as
`OpusDecoderState.decoder`; none is included.

## Caching

```python
from voicebird.input.cached import Memory

cached = Memory(source, None)
second_view = cached.new_handle()
playable = second_view.into_input()
```

`default_config`, `raw_cost_per_sec`, `compressed_cost_per_sec` and
`apply_length_hint` help size a `CacheConfig`.

## What it does not do

- It does not open audio from files or URLs by running external programs, and
  it does not read DCA files from disk; bring your own bytes and wrap them in a
  `Reader`.
- It has no Opus encoder or decoder of its own, and no compressed cache.
- It does not connect to voice servers or send audio: it stops at producing a
  `ConnectionInfo` and float PCM frames for a voice driver to use.
- It has no command-line program.