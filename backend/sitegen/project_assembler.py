"""
Project scaffolder — writes the Next.js skeleton before any component exists.

Functions:
  make_project_dir_name()  — filesystem-safe, deterministic directory name
  scaffold_project()       — directory tree + static config files, no AI

Any filesystem failure is raised as ProjectFileError. A partially written
tree is left on disk for diagnosis.
"""

from dataclasses import dataclass
import json
import logging
import os
import re

from sitegen.errors import ProjectFileError
from sitegen.models import BusinessProfile


logger = logging.getLogger(__name__)

DEFAULT_DIR_NAME = "landing-page"

PROJECT_DIRS = (
    os.path.join("src", "app"),
    os.path.join("src", "components"),
    os.path.join("src", "lib"),
    "public",
)

BASE_DEPENDENCIES = {
    "next": "14.0.4",
    "react": "^18",
    "react-dom": "^18",
    "framer-motion": "^10.16.4",
    "tailwindcss-animate": "^1.0.7",
}

BASE_DEV_DEPENDENCIES = {
    "@types/node": "^20",
    "@types/react": "^18",
    "@types/react-dom": "^18",
    "autoprefixer": "^10.0.1",
    "eslint": "^8",
    "eslint-config-next": "14.0.4",
    "postcss": "^8",
    "tailwindcss": "^3.3.0",
    "typescript": "^5",
}


@dataclass
class ProjectSetup:
    project_path: str  # full path to the project directory
    project_dir: str   # directory name, doubles as the project id


def make_project_dir_name(name: str, timestamp: int | None = None) -> str:
    """
    Lowercase, collapse every run of non [a-z0-9] characters into one hyphen,
    trim hyphens. Empty results fall back to a generic name.
    """
    slug = re.sub(r"[^a-z0-9]+", "-", (name or "").lower()).strip("-")
    if not slug:
        slug = DEFAULT_DIR_NAME
    if timestamp is not None:
        slug = f"{slug}-{timestamp}"
    return slug


def _js_string(value: str) -> str:
    """Quote a Python string as a JS/TS string literal."""
    return json.dumps(value, ensure_ascii=False)


def _build_package_json(profile: BusinessProfile) -> str:
    package = {
        "name": make_project_dir_name(profile.business_name),
        "version": "0.1.0",
        "private": True,
        "scripts": {
            "dev": "next dev",
            "build": "next build",
            "start": "next start",
            "lint": "next lint",
        },
        "dependencies": dict(BASE_DEPENDENCIES),
        "devDependencies": dict(BASE_DEV_DEPENDENCIES),
    }
    return json.dumps(package, indent=2) + "\n"


def _build_tailwind_config(profile: BusinessProfile) -> str:
    """Build tailwind.config.js with the two theme colors."""
    return f'''/** @type {{import('tailwindcss').Config}} */
module.exports = {{
  darkMode: ["class"],
  content: [
    './src/pages/**/*.{{js,ts,jsx,tsx,mdx}}',
    './src/components/**/*.{{js,ts,jsx,tsx,mdx}}',
    './src/app/**/*.{{js,ts,jsx,tsx,mdx}}',
  ],
  theme: {{
    container: {{
      center: true,
      padding: "2rem",
      screens: {{
        "2xl": "1400px",
      }},
    }},
    extend: {{
      colors: {{
        primary: {{
          DEFAULT: "{profile.primary_color}",
          foreground: "#ffffff",
        }},
        secondary: {{
          DEFAULT: "{profile.secondary_color}",
          foreground: "#ffffff",
        }},
      }},
      keyframes: {{
        "accordion-down": {{
          from: {{ height: 0 }},
          to: {{ height: "var(--radix-accordion-content-height)" }},
        }},
        "accordion-up": {{
          from: {{ height: "var(--radix-accordion-content-height)" }},
          to: {{ height: 0 }},
        }},
      }},
      animation: {{
        "accordion-down": "accordion-down 0.2s ease-out",
        "accordion-up": "accordion-up 0.2s ease-out",
      }},
    }},
  }},
  plugins: [require("tailwindcss-animate")],
}}
'''


POSTCSS_CONFIG = '''module.exports = {
  plugins: {
    tailwindcss: {},
    autoprefixer: {},
  },
}
'''

NEXT_CONFIG = '''/** @type {import('next').NextConfig} */
const nextConfig = {
  reactStrictMode: true,
  images: {
    remotePatterns: [{ protocol: 'https', hostname: '**' }],
  },
}

module.exports = nextConfig
'''

GITIGNORE = '''node_modules
.next
out
.vercel
*.log
'''

TSCONFIG = {
    "compilerOptions": {
        "target": "es5",
        "lib": ["dom", "dom.iterable", "esnext"],
        "allowJs": True,
        "skipLibCheck": True,
        "strict": True,
        "forceConsistentCasingInFileNames": True,
        "noEmit": True,
        "esModuleInterop": True,
        "module": "esnext",
        "moduleResolution": "node",
        "resolveJsonModule": True,
        "isolatedModules": True,
        "jsx": "preserve",
        "incremental": True,
        "plugins": [{"name": "next"}],
        "paths": {"@/*": ["./src/*"]},
    },
    "include": ["next-env.d.ts", "**/*.ts", "**/*.tsx", ".next/types/**/*.ts"],
    "exclude": ["node_modules"],
}


def _build_globals_css(profile: BusinessProfile) -> str:
    """Build src/app/globals.css with Tailwind, theme variables and page direction."""
    return f"""@tailwind base;
@tailwind components;
@tailwind utilities;

:root {{
  --primary-color: {profile.primary_color};
  --secondary-color: {profile.secondary_color};
}}

html {{
  scroll-behavior: smooth;
}}

body {{
  direction: {profile.direction};
}}

@layer utilities {{
  .text-balance {{
    text-wrap: balance;
  }}
}}
"""


def _build_layout_tsx(profile: BusinessProfile) -> str:
    """Build src/app/layout.tsx with metadata, lang and dir from the profile."""
    description = profile.meta_description or profile.description
    keywords = ", ".join(profile.meta_keywords)
    return f'''import './globals.css'
import type {{ Metadata }} from 'next'
import {{ Inter }} from 'next/font/google'

const inter = Inter({{ subsets: ['latin'] }})

export const metadata: Metadata = {{
  title: {_js_string(profile.business_name)},
  description: {_js_string(description)},
  keywords: {_js_string(keywords)},
}}

export default function RootLayout({{
  children,
}}: {{
  children: React.ReactNode
}}) {{
  return (
    <html lang="{profile.locale}" dir="{profile.direction}">
      <body className={{inter.className}}>{{children}}</body>
    </html>
  )
}}
'''


# The closing </main> is the insertion anchor for generated components
ROOT_PAGE_TSX = '''export default function Home() {
  return (
    <main className="flex min-h-screen flex-col">
    </main>
  );
}
'''


def _write(path: str, content: str) -> None:
    try:
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)
    except OSError as e:
        raise ProjectFileError("write file", path, e) from e
    logger.info(f"[scaffold] Created {path}")


def scaffold_project(profile: BusinessProfile, base_dir: str, dir_name: str | None = None) -> ProjectSetup:
    """
    Create the project skeleton under base_dir/dir_name.

    Returns the project path and directory name. Raises ProjectFileError on
    the first filesystem failure.
    """
    project_dir = dir_name or make_project_dir_name(profile.business_name)
    project_path = os.path.join(base_dir, project_dir)
    logger.info(f"[scaffold] Creating project at {project_path}", extra={"project": project_dir})

    for rel in PROJECT_DIRS:
        target = os.path.join(project_path, rel)
        try:
            os.makedirs(target, exist_ok=True)
        except OSError as e:
            raise ProjectFileError("create directory", target, e) from e

    files = {
        "package.json": _build_package_json(profile),
        "tailwind.config.js": _build_tailwind_config(profile),
        "postcss.config.js": POSTCSS_CONFIG,
        "tsconfig.json": json.dumps(TSCONFIG, indent=2) + "\n",
        "next.config.js": NEXT_CONFIG,
        ".gitignore": GITIGNORE,
        os.path.join("src", "app", "globals.css"): _build_globals_css(profile),
        os.path.join("src", "app", "layout.tsx"): _build_layout_tsx(profile),
        os.path.join("src", "app", "page.tsx"): ROOT_PAGE_TSX,
    }
    for rel, content in files.items():
        _write(os.path.join(project_path, rel), content)

    logger.info(
        f"[scaffold] {project_dir}: type={profile.business_type}, industry={profile.industry}, "
        f"language={profile.language}, rtl={profile.is_rtl}",
        extra={"project": project_dir},
    )
    return ProjectSetup(project_path=project_path, project_dir=project_dir)
