# liframe

Building blocks for the server side of a multi-server online game: the
messages servers exchange, session tokens, a registry of the servers in a
cluster, a small real-time scene game and a strategy-game economy. The
package holds game logic and bookkeeping only; it is meant to be driven by
a network layer of your choosing.

## Modules

- `liframe.proto` – message dataclasses (`LoginReq`, `LoginAck`,
  `ServerInfo`, `ServerListAck`, `CheckSessionReq`, `User`, …), result
  codes in `Code`, server kinds in `ServerType`, and `encode_message` /
  `decode_message` for JSON bodies. Decoding matches keys
  case-insensitively and ignores unknown keys.
- `liframe.naming` – `snake_string`, `snake_string_with_acronym`,
  `camel_string`, `to_str`, `to_int64`, the `StrTo` converter and
  `set_name_strategy` / `name_strategy`.
- `liframe.config` – `Config` (with `Config.from_dict`) and
  `GlobalObject.load` for a JSON server configuration, plus `mysql_dsn`,
  `path_exists`, `get_file_line_count`, `encode_object` and
  `decode_object`.
- `liframe.tables` – `Table` and `XlsxManager` for spreadsheet-driven game
  data (first row: column types, second row: column keys, then data rows);
  `read_xlsx_rows` reads an `.xlsx` workbook with the standard library.
- `liframe.buildings` – `init_tables`, `building_yield`,
  `building_capacity` and `max_level`, keyed by `BuildingSheet`.
- `liframe.registry` – `ServerRegistry` (picks the least loaded live
  server of a kind), `OnlineCounter` and `MasterRegistry`.
- `liframe.sessions` – AES-encrypted session strings (`SessionManager`)
  and five-minute login sessions per user (`LoginSessionManager`).
- `liframe.gamestate`, `liframe.scene`, `liframe.mainlogic` – a scene game
  with players and spawning monsters (`Scene`), per-user presence
  (`UserManager`), scene routing (`GameLogic`) and the request handler
  (`GameService`).
- `liframe.slgmodels`, `liframe.citymap`, `liframe.player` – a strategy
  game: roles, buildings, generals and cities, `garrison_city` /
  `attack_city`, and `PlayerData` / `PlayerManager` for production,
  storage limits and building upgrades.

## Examples

Name conversion:

```python
from liframe.naming import camel_string, snake_string, snake_string_with_acronym

snake_string("PicUrl")              # "pic_url"
snake_string_with_acronym("PicURL") # "pic_url"
camel_string("pic_url")             # "PicUrl"
```

Spreadsheet tables:

```python
from liframe.tables import Table

table = Table.from_rows([
    ["int", "string"],
    ["level", "name"],
    ["1", "camp"],
    ["2", "fort"],
])
table.count()                 # 2
table.get_int("level", 1)     # 2
table.get_string("name", 0)   # "camp"
table.to_json_string()        # '[{"level":1,"name":"camp"},{"level":2,"name":"fort"}]'
```

Sessions:

```python
from liframe.sessions import SessionManager

sessions = SessionManager()
issued = sessions.create_session("login-1", 42)
sessions.session_origin(issued)   # "login-1"
```

Picking the least loaded server of a kind:

```python
from liframe.proto import ServerInfo, ServerType
from liframe.registry import ServerRegistry

registry = ServerRegistry()
registry.update({
    "login-1": ServerInfo(id="login-1", ip="10.0.0.1", port=9000,
                          server_type=ServerType.LOGIN, online_cnt=3),
    "login-2": ServerInfo(id="login-2", ip="10.0.0.2", port=9000,
                          server_type=ServerType.LOGIN, online_cnt=1),
})
registry.distribute(ServerType.LOGIN).id   # "login-2"
```

Lookups that find nothing raise exceptions (`LookupError`, `TableError`,
`SessionError`) rather than returning status codes.

## What the package does not do

- It opens no sockets and runs no servers: there is no TCP, WebSocket or
  HTTP listener, no gateway and no command to start a process.
- It has no database layer. `mysql_dsn` only builds a connection string,
  and `PlayerData` / `PlayerManager` keep saved roles, buildings and
  generals in memory unless given a store object of their own.
- It runs no timers. Periodic work such as `PlayerManager.step`,
  `Scene.step`, `MasterRegistry.live_check` and
  `LoginSessionManager.expire` must be called by the host application.