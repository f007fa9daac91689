import unittest

from cvewatch.managers.go import GoManager


class TestGoManager(unittest.TestCase):

    def setUp(self):
        self.manager = GoManager()

    def test_go_mod_require_block_and_single_line(self):
        mock_content = """module example.com/app

go 1.21

require github.com/pkg/errors v0.9.1

require (
\tgithub.com/gin-gonic/gin v1.9.1
\t// pinned for CVE fix
\tgolang.org/x/text v0.14.0 // indirect
)
"""
        deps = self.manager.parse("go.mod", mock_content)

        self.assertEqual([(d.name, d.version) for d in deps], [
            ("github.com/pkg/errors", "0.9.1"),
            ("github.com/gin-gonic/gin", "1.9.1"),
            ("golang.org/x/text", "0.14.0"),
        ])
        self.assertTrue(all(d.ecosystem == "go" for d in deps))

    def test_go_sum_first_occurrence_per_module(self):
        mock_content = """github.com/pkg/errors v0.9.1 h1:FEBLx1zS214owpjy7qsBeixbURkuhQAwrK5UwLGTwt4=
github.com/pkg/errors v0.9.1/go.mod h1:bwawxfHBFNV+L2hUp1rHADufV3IMtnDRdf1r5NINEl0=
golang.org/x/text v0.14.0 h1:ScX5w1eTa3QqT8oi6+ziP7dTV1S2+ALU0bI+0zXKWiQ=
"""
        deps = self.manager.parse("go.sum", mock_content)

        self.assertEqual([(d.name, d.version) for d in deps], [
            ("github.com/pkg/errors", "0.9.1"),
            ("golang.org/x/text", "0.14.0"),
        ])
