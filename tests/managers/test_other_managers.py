import json
import unittest

from cvewatch.managers.dart import PubManager
from cvewatch.managers.php import ComposerManager
from cvewatch.managers.swift import AppleManager


class TestComposerManager(unittest.TestCase):

    def test_composer_skips_platform_requirements(self):
        content = json.dumps({
            "require": {"php": ">=8.1", "ext-json": "*", "monolog/monolog": "^3.0"},
            "require-dev": {"phpunit/phpunit": "^10.0"},
        })

        deps = ComposerManager().parse("composer.json", content)

        self.assertEqual([(d.name, d.version, d.ecosystem, d.kind) for d in deps], [
            ("monolog/monolog", "3.0", "composer", "prod"),
            ("phpunit/phpunit", "10.0", "composer", "dev"),
        ])

    def test_empty_dev_constraint_is_still_dev(self):
        content = json.dumps({"require-dev": {"phpunit/phpunit": ""}})

        deps = ComposerManager().parse("composer.json", content)

        self.assertEqual([(d.name, d.version, d.kind) for d in deps], [("phpunit/phpunit", "latest", "dev")])


class TestPubManager(unittest.TestCase):

    def test_pubspec_sections(self):
        content = """name: demo
environment:
  sdk: ">=3.0.0 <4.0.0"

dependencies:
  flutter:
    sdk: flutter
  http: ^1.1.0
  provider: "6.1.1"

dev_dependencies:
  flutter_test:
    sdk: flutter
  lints: ^3.0.0
"""
        deps = PubManager().parse("pubspec.yaml", content)

        self.assertEqual([(d.name, d.version, d.kind) for d in deps], [
            ("flutter", "latest", "prod"),
            ("http", "^1.1.0", "prod"),
            ("provider", "6.1.1", "prod"),
            ("flutter_test", "latest", "dev"),
            ("lints", "^3.0.0", "dev"),
        ])


class TestAppleManager(unittest.TestCase):

    def setUp(self):
        self.manager = AppleManager()

    def test_podfile(self):
        content = """platform :ios, '13.0'
target 'App' do
  pod 'Alamofire', '~> 5.8'
  pod "SnapKit"
end
"""
        deps = self.manager.parse("Podfile", content)

        self.assertEqual([(d.name, d.version, d.ecosystem) for d in deps], [
            ("Alamofire", "~> 5.8", "cocoapods"),
            ("SnapKit", "latest", "cocoapods"),
        ])

    def test_podfile_lock_top_level_pods(self):
        content = """PODS:
  - Alamofire (5.8.1)
  - "Firebase/Core (10.18.0)":
    - FirebaseAnalytics (= 10.18.0)
  - SnapKit (5.6.0)

DEPENDENCIES:
  - Alamofire (~> 5.8)
"""
        deps = self.manager.parse("Podfile.lock", content)

        self.assertEqual([(d.name, d.version) for d in deps], [
            ("Alamofire", "5.8.1"),
            ("Firebase/Core", "10.18.0"),
            ("SnapKit", "5.6.0"),
        ])

    def test_package_swift(self):
        content = """let package = Package(
    name: "Demo",
    dependencies: [
        .package(url: "https://github.com/apple/swift-argument-parser.git", from: "1.2.0"),
        .package(url: "https://github.com/vapor/vapor", .upToNextMajor(from: "4.89.0")),
    ]
)
"""
        deps = self.manager.parse("Package.swift", content)

        self.assertEqual([(d.name, d.version, d.ecosystem) for d in deps], [
            ("swift-argument-parser", "1.2.0", "swift"),
            ("vapor", "4.89.0", "swift"),
        ])
