# dnsinfra

Building blocks for a DNS server and the tooling around it. Everything is a
library: import the modules you need.

## Modules

- `dnsinfra.file_mode` – `FileMode.parse(text)` reads octal permission strings
  such as `644`, `0644`, `o644` or `0o644`; `int(mode)` gives the number and
  `repr(mode)` shows it as `0o644`.
- `dnsinfra.ipset` – `IpSet` (or `to_ip_set(nets)`) collapses IPv4 and IPv6
  networks. `contains()` and the `in` operator accept addresses, networks or
  their text form. `+` makes a new aggregated set, `+=` appends a network,
  `compact()` merges again.
- `dnsinfra.paths` – `append_extension(path, "gz")` turns `abc.tar` into
  `abc.tar.gz`.
- `dnsinfra.middleware` – an async chain. You build it with
  `MiddlewareBuilder(default).add(m).build()`, which gives a `MiddlewareHost`.
  Its `execute(ctx, req)` runs each `Middleware` in the order added and then
  the `MiddlewareDefaultHandler`. A middleware passes the request on with
  `await next.run(ctx, req)`. Plain async callables work as links and as the
  default handler too.
- `dnsinfra.os_release` – `OsRelease.parse(text)` reads `KEY=value` lines and
  keeps values as written. It has checks such as `is_debian()` and
  `is_openwrt()`. `get()` describes the running system and reads
  `/etc/os-release` on Linux.
- `dnsinfra.process_guard` – `create(pid_file)` writes the current process id.
  It raises `AlreadyRunningError` if the file names a live process. The
  returned `ProcessGuard` removes the file on `release()` or when its `with`
  block ends.
- `dnsinfra.preset_ns` – names and addresses of some public resolvers
  (`ALIDNS_IPS`, `DNSPOD_IPS`, `CLOUDFLARE`, `GOOGLE`, `QUAD9`, `ALIDNS`).
- `dnsinfra.mapped_file` – `MappedFile(path, size, num, mode)` is a
  size-capped binary file. Once it reaches `size` bytes, it is copied to
  `<stem>-<timestamp><suffix>` and started again. At most `num` files are kept,
  the file itself included. `mapped_files()` lists them, and `remove_files()`
  deletes them all.
- `dnsinfra.log` – logging on top of the standard `logging` module.
  - `TdnsFormatter` writes lines as `date.ms:LEVEL[:logger:line]: message`.
    INFO lines leave out the logger and line number.
  - `MappedFileHandler` writes records to a `MappedFile`.
  - `init_global_default(path, level, filter_spec, size, num, mode)` logs to a
    rolling file and to stdout. It falls back to stdout alone if the file
    cannot be created.
  - `default()` logs to stdout only.
  - The console level is DEBUG when `-d` or `--debug` is in `sys.argv`, and
    INFO otherwise (`console_level`).
  - Filters are comma-separated `logger=level` directives built by
    `apply_filter`. Loggers that match no directive need WARN.
  - The default spec is `named={level},dnsinfra={level},{env}`. `{env}` is
    replaced by the `DNSINFRA_LOG` environment variable (`all_smart_dns`).
  - Both setup functions return a guard whose `close()`, or `with` block,
    removes the handlers again.
- `dnsinfra.shell_escape` – `escape(arg)` quotes an argument so that the
  Windows command-line parser reads it back unchanged.
- `dnsinfra.tls` – `load_certs_from_path(path)` returns DER certificates from a
  PEM file, or from every file in a directory. `create_tls_client_context(paths)`
  builds a verifying client `ssl.SSLContext` with ALPN `h2`. It trusts the
  system roots plus those certificates. `TlsClientConfigBundle(ca_path, ca_file)`
  holds three contexts:
  - `normal`;
  - `sni_off`, which checks the chain but not the host name;
  - `verify_off`, which does no verification.
- `dnsinfra.ping` – async ICMP, TCP, HTTP and HTTPS probes.
  - `PingAddr.parse()` accepts `tcp://ip:port`, `http[s]://ip[:port]` (ports 80
    and 443 by default) and `[icmp://]ip`.
  - `PingOptions` sets `times`, `timeout` (seconds), `all_success` and
    `duration_agg` (`DurationAgg.MIN`, `MEAN` or `MAX`).
  - `ping()` probes each target in turn and puts failures in the result list as
    `PingError`s.
  - `ping_one()` raises on failure.
  - `ping_fastest()` probes all targets at once and returns the first success.
  - ICMP needs permission to open an ICMP socket.
- `dnsinfra.installer` – `Installer.builder()` collects items:
  - `InstallItem.file(...)`, with an `InstallStrategy` for existing files
    (override, keep a `.bak` copy, or write `.default` beside it) and an
    `UninstallStrategy`;
  - `InstallItem.copy(src, dest)`;
  - `InstallItem.directory(path, ...)`.

  `install()` installs items in order. `uninstall(purge)` removes them in
  reverse.
- `dnsinfra.service_manager` – `ServiceCommand` runs a program with
  `subprocess`. `spawn()` raises `ServiceCommandError` on a non-zero exit.
  `ServiceManager(definition)` installs, uninstalls, starts, stops, restarts and
  queries a service. `status()` returns a `ServiceStatus` with a `ServiceState`
  of RUNNING, DEAD or UNKNOWN.
- `dnsinfra.service_defs` – ready-made definitions:
  - `systemd_definition`, using `systemctl`;
  - `initd_definition`, using `service`;
  - `launchctl_definition`;
  - `brew_definition`;
  - `windows_definition`, using `sc.exe`.

  `create_service_definition(default_conf, service_file)` and
  `service_manager(...)` pick the one that suits the running system. You supply
  the configuration file and service file contents yourself.
- `dnsinfra.ttl` – `Record` and `Lookup` with TTL helpers: `max_ttl()`,
  `min_ttl()`, `with_new_ttl()`, `with_max_ttl()` and `with_min_ttl()`.

## Example

```python
import asyncio
from dnsinfra.middleware import MiddlewareBuilder, Middleware, MiddlewareDefaultHandler


class Answer(MiddlewareDefaultHandler):
    async def handle(self, ctx, req):
        return f"answer for {req}"


class Trace(Middleware):
    async def handle(self, ctx, req, next):
        ctx.append("trace")
        return await next.run(ctx, req)


host = MiddlewareBuilder(Answer()).add(Trace()).build()
print(asyncio.run(host.execute([], "example.com")))  # answer for example.com
```

## What it does not do

This package does not resolve names or serve DNS. It has no upstream client,
configuration file reader or command-line program. It also does not ship the
configuration file or the service unit and init scripts that the service
definitions install.

## Installing

```
pip install dnsinfra
pip install "dnsinfra[test]"   # with the test tools
```