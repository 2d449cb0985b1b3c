import os
import sys
import tempfile
import unittest

# Add project root to path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from hy2link.models import Hysteria2Config
from hy2link.renderer import build_client_config, effective_sni, server_hostport


class TestBuildClientConfig(unittest.TestCase):
    def test_minimal_document(self):
        config = Hysteria2Config(server_address="example.com", server_ports="443", auth="tok")
        self.assertEqual(
            build_client_config(config, 1080),
            'server: "example.com:443"\n'
            '\n'
            'auth: "tok"\n'
            '\n'
            'tls:\n'
            '  insecure: false\n'
            '\n'
            'transport:\n'
            '  type: udp\n'
            '\n'
            'quic:\n'
            '  disablePathMTUDiscovery: false\n'
            '\n'
            'socks5:\n'
            '  listen: "127.0.0.1:1080"\n',
        )

    def test_full_document(self):
        config = Hysteria2Config(
            server_address="example.com",
            server_ports="20000-30000",
            auth="user:pass",
            sni="sni.example.com",
            allow_insecure=True,
            pin_sha256="abcd",
            obfs="secret",
            hop_interval=30,
            disable_mtu_discovery=True,
            init_stream_receive_window=8388608,
            max_stream_receive_window=8388608,
            init_conn_receive_window=20971520,
            max_conn_receive_window=20971520,
            upload_mbps=50,
            download_mbps=200,
        )
        self.assertEqual(
            build_client_config(config, 2080),
            'server: "example.com:20000-30000"\n'
            '\n'
            'auth: "user:pass"\n'
            '\n'
            'tls:\n'
            '  insecure: true\n'
            '  sni: "sni.example.com"\n'
            '  pinSHA256: "abcd"\n'
            '\n'
            'transport:\n'
            '  type: udp\n'
            '  udp:\n'
            '    hopInterval: 30s\n'
            '\n'
            'obfs:\n'
            '  type: salamander\n'
            '  salamander:\n'
            '    password: "secret"\n'
            '\n'
            'quic:\n'
            '  disablePathMTUDiscovery: true\n'
            '  initStreamReceiveWindow: 8388608\n'
            '  maxStreamReceiveWindow: 8388608\n'
            '  initConnReceiveWindow: 20971520\n'
            '  maxConnReceiveWindow: 20971520\n'
            '\n'
            'bandwidth:\n'
            '  up: 50 mbps\n'
            '  down: 200 mbps\n'
            '\n'
            'socks5:\n'
            '  listen: "127.0.0.1:2080"\n',
        )

    def test_no_auth_line_when_blank(self):
        text = build_client_config(Hysteria2Config(server_address="example.com", auth="  "), 1080)
        self.assertNotIn("auth:", text)

    def test_zero_windows_and_bandwidth_omitted(self):
        text = build_client_config(Hysteria2Config(server_address="example.com"), 1080)
        for key in ("initStreamReceiveWindow", "maxStreamReceiveWindow", "initConnReceiveWindow",
                    "maxConnReceiveWindow", "bandwidth", "up:", "down:"):
            self.assertNotIn(key, text)

    def test_only_upload_bandwidth(self):
        text = build_client_config(Hysteria2Config(server_address="example.com", upload_mbps=10), 1080)
        self.assertIn("\nbandwidth:\n  up: 10 mbps\n\nsocks5:", text)
        self.assertNotIn("down:", text)

    def test_single_port_has_no_hop_interval(self):
        text = build_client_config(Hysteria2Config(server_address="example.com", server_ports="443"), 1080)
        self.assertNotIn("hopInterval", text)
        self.assertNotIn("udp:", text)

    def test_port_list_enables_hopping(self):
        config = Hysteria2Config(server_address="example.com", server_ports="1000,2000,3000")
        text = build_client_config(config, 1080)
        self.assertIn('server: "example.com:1000,2000,3000"', text)
        self.assertIn("  udp:\n    hopInterval: 10s\n", text)

    def test_empty_address_still_renders(self):
        text = build_client_config(Hysteria2Config(), 1080)
        self.assertTrue(text.startswith('server: ":443"\n'))

    def test_custom_listen_host(self):
        text = build_client_config(Hysteria2Config(server_address="example.com"), 1080, listen_host="::1")
        self.assertTrue(text.endswith('socks5:\n  listen: "::1:1080"\n'))


class TestServerHostport(unittest.TestCase):
    def test_ipv6_hopping_is_bracketed(self):
        config = Hysteria2Config(server_address="2001:db8::1", server_ports="1000-2000")
        self.assertEqual(server_hostport(config), "[2001:db8::1]:1000-2000")

    def test_ipv6_single_port(self):
        config = Hysteria2Config(server_address="2001:db8::1", server_ports="443")
        self.assertEqual(server_hostport(config), "[2001:db8::1]:443")

    def test_final_address_used_without_hopping(self):
        config = Hysteria2Config(server_address="example.com", server_ports="443",
                                 final_address="127.0.0.1", final_port=20000)
        self.assertEqual(server_hostport(config), "127.0.0.1:20000")

    def test_final_address_ignored_when_hopping(self):
        config = Hysteria2Config(server_address="example.com", server_ports="1000-2000",
                                 final_address="127.0.0.1", final_port=20000)
        self.assertEqual(server_hostport(config), "example.com:1000-2000")


class TestSniDefault(unittest.TestCase):
    def test_loopback_redirect_uses_hostname(self):
        config = Hysteria2Config(server_address="example.com", final_address="127.0.0.1", final_port=20000)
        text = build_client_config(config, 1080)
        self.assertIn('  sni: "example.com"\n', text)
        # rendering does not modify the config
        self.assertEqual(config.sni, "")

    def test_no_default_for_ip_address(self):
        config = Hysteria2Config(server_address="1.2.3.4", final_address="127.0.0.1")
        self.assertEqual(effective_sni(config), "")

    def test_no_default_when_hopping(self):
        config = Hysteria2Config(server_address="example.com", server_ports="1000-2000", final_address="127.0.0.1")
        self.assertEqual(effective_sni(config), "")

    def test_no_default_without_redirect(self):
        self.assertEqual(effective_sni(Hysteria2Config(server_address="example.com")), "")

    def test_explicit_sni_wins(self):
        config = Hysteria2Config(server_address="example.com", sni="other.com", final_address="127.0.0.1")
        self.assertEqual(effective_sni(config), "other.com")


class TestCaFile(unittest.TestCase):
    CA = "-----BEGIN CERTIFICATE-----\nMIIB\n-----END CERTIFICATE-----\n"

    def test_ca_written_once(self):
        calls = []
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "ca.pem")

            def cache_file():
                calls.append(path)
                return path

            config = Hysteria2Config(server_address="example.com", ca_text=self.CA, sni="example.com")
            text = build_client_config(config, 1080, cache_file=cache_file)

            self.assertEqual(len(calls), 1)
            with open(path, encoding="utf-8") as f:
                self.assertEqual(f.read(), self.CA)
            self.assertIn(f'  sni: "example.com"\n  ca: "{os.path.abspath(path)}"\n', text)

    def test_no_callback_omits_ca(self):
        config = Hysteria2Config(server_address="example.com", ca_text=self.CA)
        self.assertNotIn("ca:", build_client_config(config, 1080))

    def test_no_ca_text_skips_callback(self):
        def cache_file():
            raise AssertionError("should not be called")

        text = build_client_config(Hysteria2Config(server_address="example.com"), 1080, cache_file=cache_file)
        self.assertNotIn("ca:", text)

    def test_write_failure_propagates(self):
        with tempfile.TemporaryDirectory() as tmp:
            missing = os.path.join(tmp, "missing", "ca.pem")
            config = Hysteria2Config(server_address="example.com", ca_text=self.CA)
            with self.assertRaises(OSError):
                build_client_config(config, 1080, cache_file=lambda: missing)


if __name__ == "__main__":
    unittest.main()
